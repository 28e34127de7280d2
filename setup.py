from setuptools import setup
import os

def read_requirements():
    """Read requirements from requirements.txt file."""
    req_file = os.path.join(os.path.dirname(__file__), 'requirements.txt')
    if os.path.exists(req_file):
        with open(req_file) as f:
            return [line.strip() for line in f if line.strip() and not line.startswith('#')]
    return ['numpy>=1.20.0', 'pandas>=1.3.0', 'matplotlib>=3.3.0']

def read_long_description():
    """Read long description from README.md file."""
    readme_file = os.path.join(os.path.dirname(__file__), 'README.md')
    if os.path.exists(readme_file):
        with open(readme_file, encoding='utf-8') as f:
            return f.read()
    return ''

setup(
    name='hiddenrepeats',
    version='1.0.0',
    description='Detection of hidden periodic repeats in DNA by window consensus scoring',
    long_description=read_long_description(),
    long_description_content_type='text/markdown',
    py_modules=['hidden_repeats', 'detect_hidden_repeats', 'plot_segments'],
    install_requires=read_requirements(),
    extras_require={
        'test': ['pytest>=7.0'],
    },
    python_requires='>=3.7',
    entry_points={
        'console_scripts': [
            'detect-hidden-repeats=detect_hidden_repeats:main',
            'hidden-repeats-plot=plot_segments:main',
        ],
    },
    classifiers=[
        'Development Status :: 4 - Beta',
        'Intended Audience :: Science/Research',
        'Topic :: Scientific/Engineering :: Bio-Informatics',
        'License :: OSI Approved :: MIT License',
        'Programming Language :: Python :: 3',
        'Operating System :: POSIX :: Linux',
        'Operating System :: MacOS :: MacOS X',
    ],
    keywords='bioinformatics genomics tandem repeats consensus binomial fisher',
)
