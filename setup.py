"""
Replica Autoscaler
Utilization-driven horizontal scaling decisions for replicated workloads
"""

from setuptools import find_packages, setup

setup(
    name="replica-autoscaler",
    version="0.1.0",
    description="Stabilized, rate-limited replica autoscaling decision core",
    author="SAGE Project",
    license="Apache License 2.0",
    packages=find_packages(include=["replica_autoscaler", "replica_autoscaler.*"]),
    python_requires=">=3.10",
    install_requires=[
        "PyYAML>=6.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "ruff>=0.1.0",
        ],
    },
)
