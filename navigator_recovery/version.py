"""Navigator Recovery Meta information.
   Navigator Recovery issues and redeems single-use recovery tokens and
   keeps sensitive settings encrypted at rest.
"""
__title__ = 'navigator_recovery'
__description__ = (
   'Navigator Recovery: email verification and password reset tokens '
   'backed by an encrypted settings store.'
)
__version__ = '0.3.0'
__copyright__ = 'Copyright (c) 2023 Jesus Lara'
__author__ = 'Jesus Lara'
__author_email__ = 'jesuslarag@gmail.com'
__license__ = 'Apache-2.0'
__url__ = 'https://github.com/phenobarbital/navigator-recovery'
