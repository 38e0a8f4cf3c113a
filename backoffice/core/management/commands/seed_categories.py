"""
Management command to load the default warehouse category tree
"""
from django.core.management.base import BaseCommand
from django.db import transaction

from backoffice.catalog.models import Category


DEFAULT_CATEGORIES = {
    'Construction Materials': {
        'Cement And Concrete': {},
        'Steel And Rebar': {},
        'Lumber': {},
    },
    'Electrical': {
        'Cables And Wires': {},
        'Lighting': {},
        'Switches And Outlets': {},
    },
    'Plumbing': {
        'Pipes And Fittings': {},
        'Valves': {},
    },
    'Safety Equipment': {
        'Personal Protective Equipment': {
            'Helmets': {},
            'Gloves': {},
            'Safety Boots': {},
        },
        'Signage': {},
    },
    'Tools': {
        'Hand Tools': {},
        'Power Tools': {},
        'Measuring Tools': {},
    },
}


class Command(BaseCommand):
    help = "Loads the default nested product categories"

    def add_arguments(self, parser):
        parser.add_argument(
            '--clear',
            action='store_true',
            help='Delete all existing categories before loading the defaults',
        )

    @transaction.atomic
    def handle(self, *args, **options):
        if options['clear']:
            self.stdout.write(self.style.WARNING("Clearing all existing categories..."))
            Category.objects.all().delete()

        self.created_count = 0
        self.skipped_count = 0
        self._load(DEFAULT_CATEGORIES, parent=None, level=0)

        self.stdout.write(self.style.SUCCESS("SUMMARY"))
        self.stdout.write(f"Categories Created: {self.created_count}")
        self.stdout.write(f"Categories Skipped (already exist): {self.skipped_count}")
        self.stdout.write(f"Total Categories in Database: {Category.objects.count()}")

    def _load(self, tree, parent, level):
        for name, children in tree.items():
            category, created = Category.objects.get_or_create(name=name, parent=parent)
            indent = '  ' * (level + 1)
            if created:
                self.created_count += 1
                self.stdout.write(self.style.SUCCESS(f"{indent}Created: {name}"))
            else:
                self.skipped_count += 1
                self.stdout.write(f"{indent}Skipped (already exists): {name}")
            self._load(children, parent=category, level=level + 1)
