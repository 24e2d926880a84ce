"""
Default identity topology for a development cloud.

Phase one creates the service domain and every role, user, group and
project in the default domain; none of them depend on each other. Phase two
creates the service project inside the service domain. Phase three grants
roles and group membership, each step waiting only for the entities it
references.
"""

from __future__ import annotations

from keyseed.config import Settings, get_settings
from keyseed.orchestration.plan import PlanBuilder, ProvisioningPlan

ROLES = {
    "admin": "admin",
    "member": "member",
    "reader": "reader",
    "service": "service",
    "reseller": "ResellerAdmin",
    "another": "anotherrole",
}


def default_plan(settings: Settings | None = None) -> ProvisioningPlan:
    settings = settings or get_settings()
    default = settings.default_domain_id
    password = settings.admin_password
    mail = settings.demo_email_domain

    b = PlanBuilder()

    service_domain = b.domain(
        "ks-domain-service", settings.service_domain_name, description="Service domain"
    )
    roles = {alias: b.role(f"ks-role-{alias}", name) for alias, name in ROLES.items()}

    admin_project = b.project("ks-project-admin", "admin", default)
    admin = b.user("ks-user-admin", "admin", default, password=password)

    demo_project = b.project("ks-project-demo", "demo", default)
    invis_project = b.project("ks-project-invis", "invisible_to_admin", default)
    alt_project = b.project("ks-project-alt", "alt_demo", default)
    demo = b.user("ks-user-demo", "demo", default, password=password, email=f"demo@{mail}")
    alt = b.user("ks-user-alt", "alt_demo", default, password=password, email=f"alt_demo@{mail}")

    admins = b.group("ks-group-admins", "admins", default, description="openstack admin group")
    nonadmins = b.group("ks-group-nonadmins", "nonadmins", default, description="non-admin group")

    system_users = {
        scope: b.user(f"ks-user-system-{scope}", f"system_{scope}", default, password=password)
        for scope in ("admin", "member", "reader")
    }

    b.barrier()

    service = b.project("ks-project-service", settings.service_project_name, service_domain)

    b.barrier()

    b.grant("ks-admin-admin", role=roles["admin"], user=admin, project=admin_project)
    b.grant("ks-admin-system", role=roles["admin"], user=admin, system="all")
    b.grant("ks-service-admin", role=roles["admin"], user=admin, project=service)

    b.grant("ks-demo-member", role=roles["member"], user=demo, project=demo_project)
    b.grant("ks-demo-admin", role=roles["admin"], user=admin, project=demo_project)
    b.grant("ks-demo-another", role=roles["another"], user=demo, project=demo_project)
    b.grant("ks-demo-invis", role=roles["member"], user=demo, project=invis_project)

    b.grant("ks-alt-member", role=roles["member"], user=alt, project=alt_project)
    b.grant("ks-alt-admin", role=roles["admin"], user=admin, project=alt_project)
    b.grant("ks-alt-another", role=roles["another"], user=alt, project=alt_project)

    b.grant("ks-group-memberdemo", role=roles["member"], group=nonadmins, project=demo_project)
    b.grant("ks-group-anotheralt", role=roles["another"], group=nonadmins, project=alt_project)
    b.grant("ks-group-memberalt", role=roles["member"], group=nonadmins, project=alt_project)
    b.grant("ks-group-admin", role=roles["admin"], group=admins, project=admin_project)
    b.member("ks-group-admins-admin", group=admins, user=admin)

    for scope, user in system_users.items():
        b.grant(f"ks-system-{scope}", role=roles[scope], user=user, system="all")

    return b.build()
