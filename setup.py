#!/usr/bin/env python
from setuptools import setup, find_packages

with open("README.md", "r", encoding='utf-8') as fh:
    long_description = fh.read()

setup(
    name="deckhand",
    version="0.4.0",
    description="Deploy containerized applications to AWS ECS",
    long_description=long_description,
    long_description_content_type="text/markdown",
    keywords=['aws', 'ecs', 'docker', 'devops'],
    classifiers=[
       "Programming Language :: Python :: 3"
    ],
    packages=find_packages(),
    include_package_data=True,
    python_requires=">=3.8",
    install_requires=[
        "boto3 >= 1.17",
        "cement>=3.0.0",
        "click >= 6.7",
        "colorlog",
        "jsondiff >= 1.2.0",
        "PyYAML >= 5.1",
        "tzlocal >= 4.0.1",
    ],
    extras_require={
        'test': [
            "mock",
            "pytest",
            "testfixtures >= 6.18",
        ],
    },
    entry_points={'console_scripts': [
        'deckhand = deckhand.main:main',
    ]}
)
