import click
from faker import Faker
from flask.cli import with_appcontext

from treeofhope.extensions import db

fake = Faker()

DEMO_CAMPAIGNS = [
    {
        "slug": "sarah",
        "title": "Sarah's Tree of Hope",
        "patient_name": "Sarah",
        "status": "active",
        "description": "Sarah is facing treatment with courage. Leave a leaf of hope on her tree.",
        "story": "Sarah was diagnosed this spring. Her family and friends are walking alongside her every step.",
        "leaves": [
            ("Mom", "You are stronger than you know. I see your courage every single day."),
            ("Your best friend", "You make us all better just by being you. We're here, always."),
            ("Your sister", "On the days when you can't believe in yourself, we believe for you."),
            ("Dad", "Every small step you take matters. You matter. I'm so proud of you."),
            ("Someone who loves you", "Your light is brighter than your struggle. Keep shining."),
        ],
        "sanctuary": True,
    },
    {
        "slug": "mike",
        "title": "Standing with Mike",
        "patient_name": "Mike",
        "status": "draft",
        "description": "Mike's community is rallying around him during his recovery.",
        "story": "Mike's friends started a fundraiser when he was hurt. This tree lets them keep showing up.",
        "leaves": [
            ("A friend", "Thinking of you and sending strength."),
            ("Your community", "You're not alone in this. We're here."),
            ("Tree of Hope", "One day at a time. We'll walk with you."),
        ],
        "bridge": {
            "gofundme_url": "https://www.gofundme.com/f/standing-with-mike",
            "gofundme_title": "Standing with Mike",
            "gofundme_organiser_name": "Jamie",
            "gofundme_raised_cents": 1_245_000,
            "gofundme_goal_cents": 2_000_000,
            "gofundme_donor_count": 143,
            "gofundme_category": "medical",
        },
    },
]


@click.group("tree")
def tree_cli():
    """Tree of Hope management commands."""
    pass


@tree_cli.command("seed-demo")
@click.option("--extra-leaves", default=0, show_default=True, help="Faker-generated leaves added to each demo tree.")
@with_appcontext
def seed_demo(extra_leaves):
    """Seed the demo campaigns, their leaves and Sarah's sanctuary."""
    from treeofhope.models import BridgeCampaign, Campaign
    from treeofhope.services.campaigns import add_leaf

    for data in DEMO_CAMPAIGNS:
        campaign = Campaign.by_slug(data["slug"])
        if campaign:
            click.echo(f"🔁 {campaign.slug} already seeded, skipping")
            continue

        campaign = Campaign(
            slug=data["slug"],
            title=data["title"],
            patient_name=data["patient_name"],
            status=data["status"],
            description=data["description"],
            story=data["story"],
            leaf_count=0,
            supporter_count=0,
            monthly_total_cents=0,
        )
        db.session.add(campaign)
        db.session.flush()

        leaves = list(data["leaves"])
        leaves += [(fake.first_name(), fake.sentence(nb_words=10)) for _ in range(int(extra_leaves))]
        for author, message in leaves:
            add_leaf(campaign.id, author_name=author, message=message, is_public=True)

        if data.get("sanctuary"):
            _upsert_days(campaign.id)

        if data.get("bridge"):
            db.session.add(BridgeCampaign(campaign_id=campaign.id, status="scouted", outreach_attempts=0, **data["bridge"]))

        db.session.commit()
        click.echo(f"✨ Seeded {campaign.slug} with {len(leaves)} leaves")

    click.secho("✅ Demo data seeded!", fg="bright_green", bold=True)


@tree_cli.command("seed-sanctuary")
@click.argument("ref")
@with_appcontext
def seed_sanctuary(ref):
    """Load (or refresh) the 30 sanctuary days for a campaign id or slug."""
    from treeofhope.services.campaigns import resolve_campaign

    campaign = resolve_campaign(ref)
    if campaign is None:
        raise click.ClickException(f"Campaign not found: {ref}")
    created = _upsert_days(campaign.id)
    db.session.commit()
    click.echo(f"✅ Sanctuary ready for {campaign.slug} ({created} new days)")


@tree_cli.command("create-admin")
@click.argument("email")
@with_appcontext
def create_admin(email):
    """Create the user if needed and grant the admin role."""
    from treeofhope.services.auth import get_or_create_user

    user, created = get_or_create_user(email)
    user.is_admin = True
    db.session.commit()
    click.echo(f"{'✨ Created' if created else '🔁 Promoted'} admin {user.email}")


# ---------- Helpers ----------
def _upsert_days(campaign_id):
    from treeofhope.cli.sanctuary_content import day_rows
    from treeofhope.models import SanctuaryDay

    existing = {d.day_number: d for d in SanctuaryDay.query.filter_by(campaign_id=campaign_id).all()}
    created = 0
    for row in day_rows():
        day = existing.get(row["day_number"])
        if day is None:
            db.session.add(SanctuaryDay(campaign_id=campaign_id, **row))
            created += 1
        else:
            day.title = row["title"]
            day.content_markdown = row["content_markdown"]
            day.reflection_prompt = row["reflection_prompt"]
    return created
