"""
setup.py - Project Setup

  pip install -e .            runtime
  pip install -e .[test]      + pytest

Start server:  python -m server.api
Enroll user:   python -m client.client_app enroll --user USER-001 --name "João Silva"
Authenticate:  python -m client.client_app auth --user USER-001
Run tests:     python -m pytest tests/ -v
"""

from setuptools import setup

REQUIREMENTS = [
    "flask>=2.3",
    "cryptography>=41.0",
    "numpy>=1.24",
    "requests>=2.31",
]

setup(
    name="biometric-access-control",
    version="1.0.0",
    description="Biometric authentication engine with tiered access levels",
    packages=["common", "server", "client"],
    python_requires=">=3.9",
    install_requires=REQUIREMENTS,
    extras_require={"test": ["pytest>=7.0"]},
)
