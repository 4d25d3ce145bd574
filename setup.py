import re
import sys
from pathlib import Path

from setuptools import find_packages, setup

project_dir = Path(__file__).parent


def get_version():
    text = (project_dir / "src" / "egress_gateway" / "version.py").read_text()
    match = re.compile(r"__version__\s*=\s*\"?([^\n\"]+)\"?.*").match(text)
    if match:
        if match.group(1) != "None":
            return match.group(1)
        else:
            return None
    else:
        sys.exit("Can't parse version.py")


def get_long_description():
    return open(project_dir / "README.md").read()


BASE_DEPS = [
    "pyyaml",
    "typing-extensions>=4.0.0",
    "cryptography",
    "rich",
    "rich-argparse",
    "pydantic>=1.10.10,<2.0.0",
    "pydantic-duality>=1.2.4",
    "orjson",
    "python-json-logger>=3.1.0",
    "apscheduler<4",
]

AZURE_DEPS = [
    "azure-core",
    "azure-identity>=1.12.0",
    "azure-mgmt-compute>=29.1.0",
    "azure-mgmt-network>=23.0.0,<28.0.0",
]

KUBERNETES_DEPS = ["kubernetes"]

TEST_DEPS = ["pytest"]

ALL_DEPS = AZURE_DEPS + KUBERNETES_DEPS

setup(
    name="egress-gateway",
    version=get_version(),
    package_dir={"": "src"},
    packages=find_packages("src", exclude=["tests", "tests.*"]),
    include_package_data=True,
    scripts=[],
    entry_points={
        "console_scripts": [
            "egress-gateway-controller=egress_gateway._internal.cli.main:main",
        ],
    },
    description=(
        "Controller that provisions static egress gateways for cluster workloads"
        " on Azure load balancers and VM scale sets."
    ),
    long_description=get_long_description(),
    long_description_content_type="text/markdown",
    python_requires=">=3.9",
    install_requires=BASE_DEPS + ALL_DEPS,
    extras_require={
        "all": ALL_DEPS,
        "azure": AZURE_DEPS,
        "kubernetes": KUBERNETES_DEPS,
        "test": TEST_DEPS,
    },
    classifiers=[
        "Development Status :: 2 - Pre-Alpha",
        "Topic :: System :: Networking",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
    ],
)
