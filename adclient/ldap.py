# The transport reaches python-ldap through this module so that tests can
# patch ``adclient.ldap.initialize`` with python-ldap-faker.
import ldap
from ldap import *  # noqa: F403

__version__ = ldap.__version__
