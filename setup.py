from setuptools import setup, find_packages

setup(
    name="corsprobe",
    version="1.0.0",
    description="CORS misconfiguration finder using crafted Origin bypass strategies",
    long_description=open("README.md", encoding="utf-8").read(),
    long_description_content_type="text/markdown",
    license="GPL-3.0-only",
    python_requires=">=3.9",
    packages=find_packages(exclude=["tests", "tests.*"]),
    py_modules=["corsprobe"],
    install_requires=[
        "requests",
        "requests[socks]",
        "colorama>=0.4.6",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "corsprobe=corsprobe:main"
        ]
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: GNU General Public License v3 (GPLv3)",
        "Operating System :: OS Independent",
        "Topic :: Security",
    ],
)
