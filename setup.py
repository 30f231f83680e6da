from setuptools import setup, find_packages

setup(
    name="hiveclaim",
    version="0.1.0",
    description="Hive account creation gated on Bitcoin address ownership",
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    install_requires=[
        "fastapi>=0.110",
        "pydantic>=2.0",
        "httpx>=0.25",
        "slowapi>=0.1.9",
        "python-json-logger>=3.1",
        "uvicorn>=0.27",
        "python-dotenv>=1.0",
        "coincurve>=18.0",
        "base58>=2.1",
        "bech32>=1.2",
        "pycryptodome>=3.19",
    ],
    extras_require={"dev": ["pytest>=7.0", "pytest-asyncio>=0.23", "respx>=0.20"]},
    entry_points={"console_scripts": ["hiveclaim=hiveclaim.cli:main"]},
    python_requires=">=3.10",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Topic :: Security :: Cryptography",
        "Framework :: FastAPI",
        "Programming Language :: Python :: 3",
    ],
    keywords="hive bitcoin account-creation signed-message",
)
