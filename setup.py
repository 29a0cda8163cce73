from setuptools import setup, find_packages

setup(
    name="modtinder",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "fastapi",
        "uvicorn[standard]",
        "pydantic>=2",
        "pydantic-settings",
        "sqlalchemy[asyncio]>=2.0",
        "asyncpg",
        "httpx",
        "apscheduler>=3.10,<4",
        "python-jose[cryptography]",
        "passlib[bcrypt]",
        "bcrypt<4.1",
        "python-multipart",
        "python-dotenv",
        "loguru",
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-asyncio>=0.24",
            "aiosqlite",
        ],
    },
    entry_points={
        "console_scripts": [
            "modtinder=modtinder.main:run",
        ],
    },
    python_requires=">=3.11",
)
