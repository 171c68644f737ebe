# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Setup configuration for FlowBridge integration flow engine
"""

from setuptools import setup, find_packages

setup(
    name="flowbridge",
    version="1.0.0",
    description="Integration flow execution engine with pluggable executors and interface dispatch",
    author="Jason Cafarelli",
    package_dir={"": "backend"},
    packages=find_packages(where="backend", exclude=["tests", "tests.*"]),
    python_requires=">=3.9",
    install_requires=[
        "fastapi>=0.110.0",
        "uvicorn>=0.27.0",
        "pydantic>=2.0.0",
        "httpx>=0.27.0",
        "PyYAML>=6.0",
        "aiofiles>=23.0.0",
        "python-dotenv>=1.0.0",
        "PyJWT[crypto]>=2.8.0",
        "aiosmtplib>=3.0.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.23.0",
        ]
    },
    entry_points={
        "console_scripts": [
            "flowbridge=flowbridge.main:main",
        ]
    },
)
