"""
otpvault
========

HOTP/TOTP authenticator core: `otpauth://` and Google Authenticator
migration import, code generation, and machine-bound encrypted secret
storage.

Packages:
- otpvault.core     pure algorithms (Base32, HOTP/TOTP, protobuf, URIs)
- otpvault.storage  encrypted secrets + account list on disk
- otpvault.importer import pipeline tying the two together
- otpvault.cli      `otpvault` command
"""

__version__ = "0.1.0"
