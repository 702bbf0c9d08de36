import setuptools

with open("README.md", "r") as fh:
    long_description = fh.read()

setuptools.setup(
    name="pyMemmon",
    version="0.1.0",
    author="dhrone",
    author_email="ron@ritchey.org",
    description="Simulated memory monitor device for Amazon's IOT-Core service",
    long_description=long_description,
    long_description_content_type="text/markdown",
    url="https://github.com/dhrone/pyMemmon",
    packages=setuptools.find_packages(exclude=["tests"]),
    python_requires=">=3.8",
    py_modules=["memmon"],
    install_requires=[
        "AWSIoTPythonSDK",
        "humanize",
        "psutil",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": ["memmon=memmon:main"],
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
)
