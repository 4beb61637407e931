from setuptools import setup, find_packages


setup(
    name='circlstm',
    version='1.0.0',
    author='Soonwoo Kwon',
    author_email='soonoolimal@gmail.com',
    packages=find_packages(include=['circlstm', 'circlstm.*']),
    python_requires='>=3.8',
    install_requires=['numpy>=1.26',
                      'tqdm>=4.0',
                      'matplotlib>=3.5'],
    extras_require={'gpu': ['cupy>=13.3.0'],
                    'test': ['pytest>=7.0']},
    entry_points={'console_scripts': ['circlstm-train=circlstm.script.train:main',
                                      'circlstm-sample=circlstm.script.sample:main']},
    description='Character-level language model on a gated recurrent cell with circulant update-gate weights.'
)
