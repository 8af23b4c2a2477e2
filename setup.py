from setuptools import setup, find_packages

setup(
    name="rtd_schedule",
    version="0.1.0",
    packages=find_packages(),
    install_requires=[
        "httpx>=0.27.2",
        "msgpack>=1.0.0",
        "pydantic>=2.0",
        "python-dotenv>=1.0.0",
        "pytz>=2023.3",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "pytest-asyncio>=0.21",
        ],
    },
    python_requires=">=3.9",
)
