import os

from setuptools import find_packages, setup


# read the version from the VERSION file
def get_version():
    with open(os.path.join(os.path.dirname(__file__), "VERSION"), "r") as version_file:
        return version_file.read().strip()


# Set the version in the stackscript/version.py file
def set_version_constant(version: str):
    with open(
        os.path.join(os.path.dirname(__file__), "stackscript", "version.py"), "w"
    ) as version_file:
        version_file.write(f'__version__ = "{version}"\n')


set_version_constant(get_version())

setup(
    name="stackscript",
    version=get_version(),
    description="Run and revert cloud infrastructure templates",
    packages=find_packages(include=["stackscript", "stackscript.*"]),
    package_data={"stackscript.template": ["*.lark"]},
    python_requires=">=3.10",
    install_requires=[
        "boto3>=1.26",
        "botocore>=1.29",
        "click>=8.1",
        "lark>=1.1",
        "python-dotenv>=0.19",
        "rich>=12.3",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "moto[ec2,iam,s3,sns,sqs]>=5.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "stackscript=stackscript.cli.main:main",
        ],
    },
)
