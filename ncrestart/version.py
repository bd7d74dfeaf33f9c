import os
import subprocess

from configparser import ConfigParser, NoSectionError, NoOptionError

try:
    from ._installed_version import _installed_version
    from ._installed_version import _installed_git_hash
except ImportError:
    _installed_version = "Unknown"
    _installed_git_hash = "Unknown"


def get_git_version():
    """
    Return the git hash as a string.

    Returns 'Unknown' when git is not available or the package does not
    live in a repository.
    """
    def _minimal_ext_cmd(cmd):
        # construct minimal environment
        env = {}
        for k in ['SYSTEMROOT', 'PATH']:
            v = os.environ.get(k)
            if v is not None:
                env[k] = v
        env['LANGUAGE'] = 'C'
        env['LANG'] = 'C'
        env['LC_ALL'] = 'C'
        with open(os.devnull, 'w') as err_out:
            out = subprocess.Popen(cmd,
                                   stdout=subprocess.PIPE,
                                   stderr=err_out,
                                   env=env).communicate()[0]
        return out

    try:
        git_dir = os.path.dirname(os.path.realpath(__file__))
        out = _minimal_ext_cmd(['git', '-C', git_dir, 'rev-parse', 'HEAD'])
        git_revision = out.strip().decode('ascii')
    except OSError:
        git_revision = 'Unknown'

    return git_revision


def get_setup_version(default_version, filename="setup.cfg"):
    """Read the version from a setup.cfg next to the package, if any.

    Parameters
    ----------
    default_version : str
        returned when no setup.cfg (or no version entry) can be found
    filename : str
        filename for setup.cfg; default 'setup.cfg'
    """
    setup_cfg = os.path.join(
        os.path.dirname(os.path.dirname(os.path.abspath(__file__))),
        filename
    )
    if not os.path.exists(setup_cfg):
        return default_version

    conf = ConfigParser()
    conf.read(setup_cfg)
    try:
        return conf.get('metadata', 'version')
    except (NoSectionError, NoOptionError):
        return default_version


short_version = get_setup_version(_installed_version)
_git_version = get_git_version()
_is_repo = (_git_version != '' and _git_version != "Unknown")

if _is_repo:
    git_hash = _git_version
    full_version = short_version + "+g" + _git_version[:7]
    version = full_version
else:
    git_hash = "Unknown"
    full_version = short_version + "+g" + _installed_git_hash[:7] + '.install'
    version = short_version
