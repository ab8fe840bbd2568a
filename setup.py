# setup.py
import os
from setuptools import setup, find_packages

# Function to read the requirements.txt file
def parse_requirements(filename="requirements.txt"):
    with open(os.path.join(os.path.dirname(__file__), filename), 'r') as f:
        return [line.strip() for line in f if line.strip() and not line.startswith('#')]

# Read the contents of your README file for long description
try:
    with open(os.path.join(os.path.dirname(__file__), 'README.md'), encoding='utf-8') as f:
        long_description = f.read()
except FileNotFoundError:
    long_description = "Drone CI plugin that annotates Unix epoch timestamps in pull request diffs."

# Get version from package __init__.py
version = {}
try:
    with open(os.path.join(os.path.dirname(__file__), "src", "drone_epoch_annotator", "__init__.py")) as fp:
        exec(fp.read(), version)
except FileNotFoundError:
    version['__version__'] = "0.1.0-dev" # Fallback version

setup(
    name='drone-epoch-annotator',
    version=version['__version__'],
    author='Ompragash Viswanathan',
    author_email='ansible@linux.com',
    description='A Drone CI plugin that comments human-readable dates next to epoch timestamps in pull requests.',
    long_description=long_description,
    long_description_content_type='text/markdown',
    url='https://github.com/ompragash/drone-epoch-annotator',
    license='Apache License 2.0',
    package_dir={'': 'src'},
    packages=find_packages(where='src', exclude=['tests*', '*.tests', '*.tests.*']),
    include_package_data=True,
    install_requires=parse_requirements(),
    extras_require={
        'test': ['pytest>=7.0'],
    },
    python_requires='>=3.9', # asyncio.to_thread
    entry_points={
        'console_scripts': [
            'drone-epoch-annotator = drone_epoch_annotator.main:main_cli',
        ],
    },
    classifiers=[
        'Development Status :: 3 - Alpha',
        'Intended Audience :: Developers',
        'License :: OSI Approved :: Apache Software License',
        'Operating System :: OS Independent',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.9',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
        'Topic :: Software Development :: Build Tools',
        'Topic :: Software Development :: Quality Assurance',
    ],
    keywords='drone ci github code review pull request epoch timestamp annotation',
)
