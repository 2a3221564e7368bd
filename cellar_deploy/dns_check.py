"""
Module for checking that a domain is a CNAME of the Cellar endpoint.
"""
import logging
from typing import Optional

import dns.exception
import dns.resolver
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_log,
    after_log
)

from .models import CELLAR_HOSTNAME, DnsCheckResult
from .tracker import ConsoleReporter

logger = logging.getLogger(__name__)

APEX_DOMAIN_ERROR = "APEX domains are not supported"
APEX_DOMAIN_DETAILS = "Use a subdomain (e.g., www.example.com)."


def validate_subdomain(domain: str) -> Optional[str]:
    """Check that a domain is a subdomain and not an APEX domain.

    Args:
        domain: Domain to validate

    Returns:
        None if the domain is valid, otherwise an error message
    """
    domain = domain.strip()
    if not domain:
        return "Domain is required"
    if len(domain.rstrip(".").split(".")) <= 2:
        return f"{APEX_DOMAIN_ERROR}. {APEX_DOMAIN_DETAILS}"
    return None


@retry(
    retry=retry_if_exception_type(dns.exception.Timeout),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=4),
    before=before_log(logger, logging.DEBUG),
    after=after_log(logger, logging.DEBUG),
    reraise=True
)
def _resolve(domain: str, rdtype: str):
    """Resolve one record type, retrying resolver timeouts."""
    return dns.resolver.resolve(domain, rdtype)


def check_cname(domain: str, expected_target: str = CELLAR_HOSTNAME) -> DnsCheckResult:
    """Check whether a domain has a CNAME record pointing to Cellar.

    Args:
        domain: Domain to check
        expected_target: Hostname the CNAME must point to

    Returns:
        DnsCheckResult describing the DNS configuration
    """
    domain = domain.strip()
    logger.info(f"Checking DNS CNAME record for {domain}")

    if validate_subdomain(domain) is not None:
        return DnsCheckResult(
            domain=domain,
            success=False,
            error=APEX_DOMAIN_ERROR,
            details=APEX_DOMAIN_DETAILS
        )

    try:
        try:
            answer = _resolve(domain, "CNAME")
            target = answer[0].target.to_text(omit_final_dot=True)
            logger.info(f"CNAME found for {domain}: {target}")
            if target.lower() == expected_target.lower():
                return DnsCheckResult(
                    domain=domain,
                    success=True,
                    cname_target=target,
                    details="CNAME record points to Cellar infrastructure"
                )
            return DnsCheckResult(
                domain=domain,
                success=False,
                cname_target=target,
                error="CNAME does not point to correct Cellar endpoint"
            )
        except (dns.resolver.NoAnswer, dns.resolver.NXDOMAIN, dns.resolver.NoNameservers):
            logger.info(f"No CNAME record found for {domain}")

        try:
            answer = _resolve(domain, "A")
            address = answer[0].to_text()
            logger.info(f"A record found for {domain}: {address}")
            return DnsCheckResult(
                domain=domain,
                success=False,
                error="Domain has A record but no CNAME",
                details=f"Domain resolves to IP {address} but needs CNAME to Cellar"
            )
        except (dns.resolver.NoAnswer, dns.resolver.NXDOMAIN, dns.resolver.NoNameservers):
            logger.debug(f"No A record found for {domain}")

        return DnsCheckResult(
            domain=domain,
            success=False,
            error="Domain does not resolve",
            details="No DNS records found for this domain"
        )

    except dns.exception.DNSException as e:
        logger.error(f"DNS check failed for {domain}: {e}")
        return DnsCheckResult(
            domain=domain,
            success=False,
            error=f"DNS lookup failed: {e}",
            details="Unable to perform DNS resolution"
        )


def display_dns_result(result: DnsCheckResult, reporter: Optional[ConsoleReporter] = None,
                       expected_target: str = CELLAR_HOSTNAME) -> None:
    """Print a DNS check result and, on failure, how to fix it."""
    reporter = reporter or ConsoleReporter()
    reporter.line()
    reporter.line("DNS Check Results:")

    if result.success:
        reporter.line("   Status: Valid CNAME configuration")
        if result.cname_target:
            reporter.line(f"   Target: {result.cname_target}")
    else:
        reporter.line("   Status: DNS configuration issue")
        if result.error:
            reporter.line(f"   Error: {result.error}")

    if result.details:
        reporter.line(f"   Details: {result.details}")

    if not result.success:
        hostname = result.domain.split(".")[0]
        reporter.line()
        reporter.line("To fix this issue:")
        reporter.line("   1. Create a CNAME record for your domain")
        reporter.line("   2. Point it to your Cellar bucket endpoint:")
        reporter.line(f"      {hostname} IN CNAME {expected_target}.")
