from setuptools import setup, find_packages

setup(
    name="image-describer",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
    install_requires=[
        "fastapi",
        "uvicorn",
        "pydantic>=2",
        "pydantic-settings>=2.1",
        "requests",
    ],
    extras_require={
        "dev": [
            "pytest",
            "responses",
            "pytest-cov",
            "httpx",
        ],
    },
    entry_points={
        "console_scripts": [
            # batch CLI: CSV/paths in, CSV export out
            "describer-run = describer.cli:main",

            # starts the FastAPI/uvicorn server
            "describer-server = describer.server:main",

        ],
    },
)
