import setuptools

VERSION = "0.1.0"

with open("requirements.txt", "r") as f:
    reqs = [l.replace("\n", "") for l in f.readlines() if l.strip()]

with open("README.md", "r") as fh:
    long_description = fh.read()

setuptools.setup(
    name="tfstate-bootstrap",
    version=VERSION,
    long_description=long_description,
    long_description_content_type="text/markdown",
    description="Terraform remote state backend bootstrap on Azure with private endpoint and private DNS",
    packages=setuptools.find_packages(),
    classifiers=[
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Operating System :: OS Independent",
    ],
    install_requires=reqs,
    extras_require={"test": ["pytest"]},
    python_requires=">=3.8",
    scripts=["scripts/tfstate-bootstrap", "scripts/tfstate-oidc"],
)
