from setuptools import setup


setup(
    name="fever-report",
    version="0.1.0",
    description="Age-band fever ratio reports from daily visit and fever Excel exports",
    packages=["fever_report"],
    install_requires=[
        "pandas",
        "openpyxl",
        "streamlit",
        "requests",
    ],
    extras_require={
        "excel-legacy": ["xlrd"],
        "all": ["xlrd"],
    },
    entry_points={
        "console_scripts": [
            "fever-report=fever_report.cli:main",
        ]
    },
)
