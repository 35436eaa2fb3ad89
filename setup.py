from setuptools import setup, find_packages

setup(
    name="ftljob",
    version="1.0.0",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    install_requires=[
        "click>=8.0.0",
        "requests>=2.25.0",
        "pydantic>=2.0.0",
        "python-dotenv>=0.19.0",
        "retrying>=1.3.3",
        "filelock>=3.0.0",
        "google-auth>=2.0.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "ftljob=ftljob.cli:main",
        ],
    },
    author="QualGent",
    description="CLI tool for running mobile test matrices on Firebase Test Lab",
    python_requires=">=3.8",
)
