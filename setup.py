"""A setuptools based module for PIP installation."""
# Docs/example setup.py: https://github.com/pypa/sampleproject/blob/master/setup.py

import os

from setuptools import setup, find_packages

__VERSION__ = "0.9.0"

base_dir = os.path.abspath(os.path.dirname(__file__))

with open(os.path.join(base_dir, "README.md")) as readme:
    readme_contents = readme.read()

with open(os.path.join(base_dir, "requirements.txt")) as requirements:
    requirements_list = [l.strip() for l in requirements.readlines() if l.strip() and not l.startswith("#")]

setup(
    # This is what people 'pip install'.
    name="participant-consent-service",
    version=__VERSION__,
    long_description=readme_contents,
    long_description_content_type="text/markdown",
    # These packages may be imported after the egg is installed.
    packages=find_packages(exclude=['tests', 'tests.*']),
    package_data={"consent_service": ["config/*.json"]},
    python_requires=">=3.8",
    install_requires=requirements_list,
    extras_require={
        "test": ["mock", "Faker", "pytest"],
    },
    entry_points={
        'console_scripts': [
            'consent-service = main:run',
        ],
    },
    py_modules=["main"],
)
