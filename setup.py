import os
import re
from setuptools import setup, find_packages

DISTNAME = "pamguide"
PACKAGES = find_packages()
EXTENSIONS = []
DESCRIPTION = "Passive acoustic monitoring spectral analysis toolkit"
AUTHOR = "pamguide developers"
MAINTAINER_EMAIL = ""
LICENSE = "Revised BSD"
URL = ""
CLASSIFIERS = [
    "Development Status :: 3 - Alpha",
    "Programming Language :: Python :: 3",
    "Topic :: Scientific/Engineering",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
]
DEPENDENCIES = [
    "numpy>=2.0.0",
    "pandas>=2.2.2",
    "scipy>=1.14.0",
    "xarray>=2024.6.0",
    "pyyaml>=6.0",
]
EXTRAS = {
    "test": ["pytest"],
}

LONG_DESCRIPTION = """
pamguide is a Python package for the analysis of passive acoustic monitoring
recordings. It computes calibrated or relative power spectral density and
broadband sound pressure level time series from mono *.wav* files:

* Overlapping, windowed framing (Hann, Hamming, Blackman, rectangular)
* One-sided power spectral density per frame
* Welch averaging into time blocks
* End-to-end, transducer-sensitivity and recorder calibration
* Broadband sound pressure level in a frequency band
* Concurrent batch processing of recording directories with CSV export

Installation
------------------------
pamguide requires Python 3.11 or later along with several Python
package dependencies. Install with ``pip install .`` from the source tree,
and run ``pamguide -c config.toml`` to process the configured input.

Copyright and license
------------------------
The software is distributed under the Revised BSD License.
"""


# get version from __init__.py
file_dir = os.path.abspath(os.path.dirname(__file__))
with open(os.path.join(file_dir, "pamguide", "__init__.py")) as f:
    version_file = f.read()
    version_match = re.search(r"^__version__ = ['\"]([^'\"]*)['\"]", version_file, re.M)
    if version_match:
        VERSION = version_match.group(1)
    else:
        raise RuntimeError("Unable to find version string.")

setup(
    name=DISTNAME,
    version=VERSION,
    packages=PACKAGES,
    ext_modules=EXTENSIONS,
    description=DESCRIPTION,
    long_description_content_type="text/markdown",
    long_description=LONG_DESCRIPTION,
    author=AUTHOR,
    maintainer_email=MAINTAINER_EMAIL,
    license=LICENSE,
    url=URL,
    classifiers=CLASSIFIERS,
    zip_safe=False,
    python_requires=">=3.11",
    install_requires=DEPENDENCIES,
    extras_require=EXTRAS,
    entry_points={"console_scripts": ["pamguide=pamguide.main:main"]},
    scripts=[],
    include_package_data=True,
)
