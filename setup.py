from setuptools import setup

setup(
    name="refract",
    version="1.3.0",
    description="Regex-driven source code annotator that wraps tokens in HTML spans",
    license="MIT",
    python_requires=">=3.10",
    packages=["refract"],
    install_requires=[
        "typing_extensions>=4.6",
    ],
    extras_require={
        "test": [
            "pytest",
            "sybil>=6",
        ],
    },
)
