from setuptools import setup, find_packages


setup(
    name="pharkit",
    version="0.1",
    packages=find_packages(include=["pharkit", "pharkit.*"]),
    description="Read, extract and verify PHP archive (.phar) files without PHP.",
    author="pharkit contributors",
    install_requires=[
        "pycryptodomex>=3.23.0",
    ],
    entry_points={
        "console_scripts": [
            "pharkit=pharkit.cli:main",
        ]
    },
)
