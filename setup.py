from setuptools import find_packages, setup

setup(
    name="partitioned-cht",
    version="0.1.0",
    description="Partitioned fluid/solid scheduling for conjugate heat transfer runs",
    package_dir={"": "src"},
    packages=find_packages("src"),
    python_requires=">=3.8",
    install_requires=[
        "numpy",
        "PyYAML",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "cht-run=partitioned_cht.cli.run_cht:main",
        ],
    },
)
