"""
Setup script for webhook-dns.
"""

from setuptools import find_packages, setup

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

with open("requirements.txt", "r", encoding="utf-8") as fh:
    requirements = fh.read().splitlines()

setup(
    name="webhook-dns-sdk",
    version="0.1.0",
    description="Client and server SDK for the external DNS webhook provider protocol",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["webhook_dns", "webhook_dns.*"]),
    classifiers=[
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.12",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
    python_requires=">=3.11",
    install_requires=requirements,
    extras_require={
        "test": ["pytest>=8.0"],
    },
    entry_points={
        "console_scripts": [
            "webhook-dns=webhook_dns.__main__:main",
        ],
    },
    include_package_data=True,
)
