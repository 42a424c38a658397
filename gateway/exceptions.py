#!/usr/bin/env python3

"""Exception hierarchy for the PIA gateway."""


class GatewayError(Exception):
    """Base exception for gateway setup and watchdog failures."""
    pass


class ConnectivityError(GatewayError):
    """The host has no working internet connection."""
    pass


class InstallerError(GatewayError):
    """The PIA client could not be downloaded or installed."""
    pass


class PiaError(GatewayError):
    """A piactl invocation failed or the VPN never connected."""
    pass


class InterfaceDetectionError(GatewayError):
    """The tunnel or LAN interface could not be detected."""
    pass


class FirewallError(GatewayError):
    """Gateway firewall rules could not be built or applied."""
    pass
