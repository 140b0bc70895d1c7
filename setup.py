from setuptools import setup, find_packages

setup(
    name='bfsboost',
    version='1.0',
    packages=find_packages(exclude=['tests', 'experiments']),
    py_modules=[
        'exceptions',
        'feature_catalog',
        'forest_io',
        'frontier_queue',
        'gbdt_trainer',
        'grad_hess',
        'simple_fit',
        'split_search',
        'tree_builder',
        'tree_evaluator',
    ],
    description='Gradient-boosted decision trees grown breadth-first into flattened node tables',
    long_description=open('README.md').read(),
    long_description_content_type='text/markdown',
    python_requires='>=3.10',
    install_requires=['numpy>=1.23'],
    extras_require={'test': ['pytest>=7']},
)
