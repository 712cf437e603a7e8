from setuptools import setup, find_packages

setup(
    name="composedtask",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    package_data={"composedtask": ["grammar.lark"]},
    install_requires=[
        "lark>=1.1",
        "pydantic>=2.0",
        "networkx>=3.0",
        "loguru>=0.7",
        "opentelemetry-api",
        "opentelemetry-sdk",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "composedtask=composedtask.cli:main",
        ],
    },
    python_requires=">=3.8",
)
