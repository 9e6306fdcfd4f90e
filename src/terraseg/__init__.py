"""terraseg: plane and cluster decomposition of range-sensor scans."""

__version__ = "0.1.0"
