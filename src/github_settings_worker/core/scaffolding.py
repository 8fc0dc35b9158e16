"""Provenance scaffolding builder.

Builds the subjects, components, inventory item and actors shared by every
record emitted in a run. build_scaffolding() is a pure function of the
snapshot: no I/O and no error path. It is called once per Eval and the result
is shared by reference across all bundle evaluations.

Inventory items link to components by identifier only, so component metadata
lives in exactly one place.
"""

from github_settings_worker.core.models import (
    Component,
    ImplementedComponent,
    InventoryItem,
    Link,
    OrganizationSnapshot,
    OriginActor,
    Property,
    ProvenanceScaffolding,
    Subject,
    SubjectType,
)

GITHUB_ORGANIZATION_COMPONENT_ID = "common-components/github-organization"
VERSION_CONTROL_COMPONENT_ID = "common-components/version-control"

COMPONENTS: tuple[Component, ...] = (
    Component(
        identifier=GITHUB_ORGANIZATION_COMPONENT_ID,
        type="service",
        title="GitHub Organization",
        description=(
            "A GitHub Organization is a managed namespace within GitHub that centralizes "
            "repositories, teams, access controls, and audit logs for an organization. It "
            "supports fine-grained permissions, integrates with identity providers (like SSO), "
            "and provides a unified policy and governance layer across all code assets."
        ),
        purpose=(
            "To securely manage repositories, teams, and permissions at scale within a "
            "centralized administrative structure, supporting governance, policy enforcement, "
            "auditability, and organizational collaboration across projects hosted on GitHub."
        ),
    ),
    Component(
        identifier=VERSION_CONTROL_COMPONENT_ID,
        type="service",
        title="Version Control",
        description=(
            "Version control systems track and manage changes to source code and configuration "
            "files over time. They provide collaboration, traceability, and the ability to audit "
            "or revert code to previous states. Version control enables parallel development "
            "workflows and structured release management across software projects."
        ),
        purpose=(
            "To maintain a complete and auditable history of code and configuration changes, "
            "enable collaboration across distributed teams, and support secure and traceable "
            "software development lifecycle (SDLC) practices."
        ),
    ),
)

ACTORS: tuple[OriginActor, ...] = (
    OriginActor(
        title="The Continuous Compliance Framework",
        type="assessment-platform",
        links=(
            Link(
                href="https://compliance-framework.github.io/docs/",
                rel="reference",
                text="The Continuous Compliance Framework",
            ),
        ),
    ),
    OriginActor(
        title="Continuous Compliance Framework - Github Settings plugin",
        type="tool",
        links=(
            Link(
                href="https://github.com/compliance-framework/plugin-github-settings",
                rel="reference",
                text="The Continuous Compliance Framework' Github Settings Plugin",
            ),
        ),
    ),
)


def organization_identifier(login: str) -> str:
    """Composite inventory key for an organization, e.g. github-organization/acme."""
    return f"github-organization/{login}"


def build_scaffolding(snapshot: OrganizationSnapshot) -> ProvenanceScaffolding:
    """Build the provenance entities for one run.

    Args:
        snapshot: The organization snapshot being assessed.

    Returns:
        ProvenanceScaffolding with one organization subject, the two component
        subjects, one inventory item and the two origin actors.
    """
    org_id = organization_identifier(snapshot.login)

    subject_props = [Property(name="name", value=snapshot.display_name)]
    if snapshot.url:
        subject_props.append(Property(name="url", value=snapshot.url))
    if snapshot.billing_email:
        subject_props.append(Property(name="billing-email", value=snapshot.billing_email))

    inventory_links = (Link(href=snapshot.url, text="Organization URL"),) if snapshot.url else ()

    inventory_item = InventoryItem(
        identifier=org_id,
        type="github-organization",
        title=f"Github Organization [{snapshot.display_name}]",
        props=(
            Property(name="name", value=snapshot.display_name),
            Property(name="path", value=snapshot.login),
        ),
        links=inventory_links,
        implemented_components=tuple(
            ImplementedComponent(identifier=component.identifier) for component in COMPONENTS
        ),
    )

    subjects = (
        Subject(
            type=SubjectType.INVENTORY_ITEM,
            identifier=org_id,
            props=tuple(subject_props),
        ),
        *(
            Subject(type=SubjectType.COMPONENT, identifier=component.identifier)
            for component in COMPONENTS
        ),
    )

    return ProvenanceScaffolding(
        subjects=subjects,
        components=COMPONENTS,
        inventory_items=(inventory_item,),
        actors=ACTORS,
    )
