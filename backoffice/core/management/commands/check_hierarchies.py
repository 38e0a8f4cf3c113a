"""
Management command to report broken category and task hierarchies
"""
from django.core.management.base import BaseCommand, CommandError

from backoffice.catalog.models import Category
from backoffice.core.hierarchy import build_tree, CyclicHierarchyError
from backoffice.tasks.models import Task


class Command(BaseCommand):
    help = "Reports cycles and dangling parent references in categories and tasks"

    def handle(self, *args, **options):
        sources = [
            ('categories', list(Category.objects.values('id', 'name', 'parent')), 'parent'),
            ('tasks', list(Task.objects.values('id', 'title', 'parent_task')), 'parent_task'),
        ]

        cycles = []
        for label, records, parent_field in sources:
            ids = {record['id'] for record in records}
            dangling = [
                record['id'] for record in records
                if record[parent_field] is not None and record[parent_field] not in ids
            ]
            if dangling:
                self.stdout.write(self.style.WARNING(
                    f"{label}: {len(dangling)} record(s) point at a missing parent: {dangling}"
                ))

            try:
                build_tree(records, parent_field=parent_field)
            except CyclicHierarchyError as e:
                cycles.append(f"{label}: {e}")
                self.stdout.write(self.style.ERROR(f"{label}: {e}"))
                continue

            self.stdout.write(self.style.SUCCESS(f"{label}: {len(records)} record(s), no cycles"))

        if cycles:
            raise CommandError(f"Found {len(cycles)} cyclic hierarchy(ies)")
