from setuptools import setup, find_namespace_packages

setup(
    name="dockest",
    version="0.1.0",
    packages=find_namespace_packages(where="src", include=["dockest*"]),
    package_dir={"": "src"},
    python_requires=">=3.9",
    install_requires=[
        "pydantic>=2.0",
        "pyyaml>=6.0",
        "click>=8.0",
        "tenacity>=8.0",
        "python-dotenv>=1.0",
        "pytest>=7.0",
    ],
    extras_require={
        "test": [
            "pytest-asyncio>=0.21",
        ],
        "dev": [
            "black>=23.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "dockest=dockest.CLI.main:main",
        ],
    },
)
