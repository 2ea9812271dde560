import csv
import os
from decimal import Decimal, InvalidOperation

from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from apps.catalog.models import Product


def _split(value):
    return [part.strip() for part in (value or "").split("|") if part.strip()]


class Command(BaseCommand):
    help = "Import or update products from a CSV file (keyed by sku)"

    def add_arguments(self, parser):
        parser.add_argument("file_path", type=str, help="Path to CSV file")

    def handle(self, *args, **kwargs):
        file_path = kwargs["file_path"]
        if not os.path.exists(file_path):
            raise CommandError(f"File not found: {file_path}")

        valid_categories = set(Product.Category.values)
        created = updated = skipped = 0

        with open(file_path, "r", encoding="utf-8") as f:
            reader = csv.DictReader(f)
            # All rows or none
            with transaction.atomic():
                for line_no, row in enumerate(reader, start=2):
                    sku = (row.get("sku") or "").strip()
                    name = (row.get("name") or "").strip()
                    category = (row.get("category") or "").strip()

                    if not (sku and name) or category not in valid_categories:
                        self.stdout.write(self.style.WARNING(f"Line {line_no}: skipped"))
                        skipped += 1
                        continue

                    try:
                        price = Decimal(row.get("price") or "0")
                        stock = int(row.get("stock") or 0)
                    except (InvalidOperation, ValueError):
                        raise CommandError(f"Line {line_no}: invalid price or stock")

                    if price < 0 or stock < 0:
                        raise CommandError(f"Line {line_no}: price and stock must be non-negative")

                    _, was_created = Product.objects.update_or_create(
                        sku=sku,
                        defaults={
                            "name": name,
                            "description": (row.get("description") or "").strip(),
                            "category": category,
                            "price": price,
                            "stock": stock,
                            "sizes": _split(row.get("sizes")),
                            "colors": _split(row.get("colors")),
                            "is_active": True,
                        },
                    )
                    if was_created:
                        created += 1
                    else:
                        updated += 1

        self.stdout.write(self.style.SUCCESS(
            f"Imported catalog: {created} created, {updated} updated, {skipped} skipped."
        ))
