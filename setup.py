from setuptools import setup, find_packages

setup(
    name="club_trip_sync",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.9",
    install_requires=[
        "google-auth",
        "google-auth-httplib2",
        "google-api-python-client",
        "requests",
        "boto3",
        "botocore",
        "tzdata",
    ],
    extras_require={
        "test": [
            "pytest",
            "cryptography",
            "httplib2",
        ],
    },
    entry_points={
        "console_scripts": [
            "trip-sync=club_trip_sync.cli:main",
        ],
    },
)
