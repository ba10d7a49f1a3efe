from vitals.probes.loader import ProbeDef, load_probes, parse_probe
from vitals.probes.network import dns_probe, http_probe, tcp_probe, tls_probe

__all__ = [
    "ProbeDef",
    "dns_probe",
    "http_probe",
    "load_probes",
    "parse_probe",
    "tcp_probe",
    "tls_probe",
]
