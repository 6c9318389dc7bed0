from setuptools import setup, find_namespace_packages

setup(
    name="intelsuite",
    version="0.1.0",
    description="Converts shorthand field reports on militant incidents into standardized one-line SITREPs with threat scoring",
    packages=find_namespace_packages(include=["intelsuite*"]),
    python_requires=">=3.10",
    install_requires=[
        "pandas>=2.0.0",
        "fastapi>=0.100.0",
        "uvicorn>=0.23.0",
        "pydantic>=2.0.0",
        "sqlalchemy>=2.0.0",
        "python-dateutil>=2.8.0",
        "python-dotenv>=1.0.0",
        "click>=8.1.0",
        "rich>=13.0.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
            "httpx>=0.24.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "intelsuite=intelsuite.cli:main",
        ],
    },
)
