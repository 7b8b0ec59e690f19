#!/usr/bin/env python
import sys

from setuptools import setup, find_packages

if len(sys.argv) == 1:
    sys.argv.append('install')

if sys.argv[1] == 'test':
    from subprocess import call
    sys.exit(call([sys.executable, '-m', 'pytest'] + sys.argv[2:]))

packages = find_packages(include=['sigflow', 'sigflow.*'])

# pip dependencies
install_requires = [
    'scipy', 'numpy', 'pytz',
]
extras_require = {
    'server': ['msgpack', 'flask', 'flask-cors', 'requests'],
    }
extras_require['all'] = sum(extras_require.values(), [])
tests_require = ['pytest']
extras_require['test'] = tests_require + extras_require['server']

#sys.dont_write_bytecode = False
dist = setup(
    name='sigflow',
    version='0.3.0',
    description='Signal flow graphs for live biosignal dashboards',
    long_description_content_type="text/x-rst",
    long_description=open('README.rst').read(),
    classifiers=[
        'Development Status :: 4 - Beta',
        'Environment :: Console',
        'Intended Audience :: Science/Research',
        'Operating System :: OS Independent',
        'Programming Language :: Python',
        'Programming Language :: Python :: 3',
        'Topic :: Scientific/Engineering',
        'Topic :: Scientific/Engineering :: Medical Science Apps.',
    ],
    zip_safe=False,
    packages=packages,
    include_package_data=True,
    entry_points = {
        'console_scripts': ['sigflow=sigflow.web_gui.run:main'],
    },
    install_requires=install_requires,
    extras_require=extras_require,
    tests_require=tests_require,
    )

# End of file
