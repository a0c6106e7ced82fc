from setuptools import setup, find_packages

setup(
    name="wfsched",
    version="1.0.0",
    author="ANRG USC",
    author_email="anrg@usc.edu",
    description="List scheduling of workflow DAGs onto identical machines with communication delays",
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    python_requires=">=3.8",
    install_requires=[
        # Core dependencies
        "networkx",
        "numpy",
        "pydantic>=2",
    ],
    extras_require={
        "test": ["pytest>=7.0.0", "pytest-timeout>=2.1.0"],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Science/Research",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Topic :: Scientific/Engineering",
        "Topic :: System :: Distributed Computing",
    ],
)
