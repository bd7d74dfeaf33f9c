import os
import subprocess

from configparser import ConfigParser

from setuptools import setup


def get_git_version():
    """Return the git hash of the source tree, or 'Unknown'."""
    env = {k: os.environ[k] for k in ['SYSTEMROOT', 'PATH']
           if k in os.environ}
    env.update({'LANGUAGE': 'C', 'LANG': 'C', 'LC_ALL': 'C'})
    try:
        with open(os.devnull, 'w') as err_out:
            out = subprocess.Popen(['git', 'rev-parse', 'HEAD'],
                                   stdout=subprocess.PIPE,
                                   stderr=err_out,
                                   env=env).communicate()[0]
        return out.strip().decode('ascii') or 'Unknown'
    except OSError:
        return 'Unknown'


def write_installed_version_py(filename="_installed_version.py"):
    my_dir = os.path.abspath(os.path.dirname(__file__))
    conf = ConfigParser()
    conf.read(os.path.join(my_dir, 'setup.cfg'))
    version = conf.get('metadata', 'version')
    src_dir = os.path.join(my_dir, conf.get('metadata', 'name'))

    content = "_installed_version = '{vers}'\n"
    content += "_installed_git_hash = '{git}'\n"
    with open(os.path.join(src_dir, filename), 'w') as f:
        f.write(content.format(vers=version, git=get_git_version()))


if __name__ == "__main__":
    write_installed_version_py()
    setup()
