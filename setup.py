from setuptools import find_packages, setup

setup(
    name="threadwarden",
    version="0.1.0",
    description="Sync static analysis findings to merge/pull request discussions without duplicates",
    packages=find_packages(include=["threadwarden", "threadwarden.*"]),
    include_package_data=True,
    python_requires=">=3.11",
    install_requires=[
        "pydantic>=2.5",
        "PyYAML>=6.0",
    ],
    extras_require={
        "server": ["fastapi>=0.110", "uvicorn>=0.29"],
        "test": ["pytest>=8.0", "fastapi>=0.110", "httpx>=0.27"],
    },
    entry_points={"console_scripts": ["threadwarden=threadwarden.cli:main"]},
)
