#!/usr/bin/env python3
"""
Seed an upload folder with fake submissions for trying out the admin dashboard.
"""
import io
import os
import random
import sys
from faker import Faker
import pandas as pd
from excel_registry import SubmissionRegistry, StatusStore, format_timestamp
from file_store import FileStore
from models import SubmissionRecord

EXTENSIONS = ('.py', '.c', '.cpp', '.java', '.zip')


def create_sample_submissions(upload_folder='uploads', count=40, batches=('A', 'B', 'C'),
                              extensions=EXTENSIONS, seed=None):
    """Create ``count`` submissions with dummy source files."""
    rng = random.Random(seed)
    fake = Faker('en_IN')  # Indian locale for better names
    if seed is not None:
        fake.seed_instance(seed)

    registry_file = os.path.join(upload_folder, 'data.xlsx')
    status_store = StatusStore(os.path.join(upload_folder, 'status.json'))
    registry = SubmissionRegistry(registry_file)
    file_store = FileStore(upload_folder,
                           excluded=[registry_file, status_store.filepath, status_store.tmp_path])

    for i in range(count):
        roll_number = f"21CS{str(i + 1).zfill(3)}"
        ext = rng.choice(extensions)
        content = f"# submission by {roll_number}\n".encode('utf-8')

        file_link = file_store.save(roll_number, f"assignment{ext}", io.BytesIO(content))
        registry.upsert(SubmissionRecord(
            Name=fake.name(),
            RollNo=roll_number,
            Batch=rng.choice(batches),
            FileLink=file_link,
            DateTime=format_timestamp(),
        ), file_store=file_store)

    df = pd.DataFrame([r.to_dict() for r in registry.list_all()])
    return registry_file, df


if __name__ == "__main__":
    folder = sys.argv[1] if len(sys.argv) > 1 else 'uploads'
    print(f"Creating sample submissions in '{folder}'")
    print("=" * 50)

    registry_file, df = create_sample_submissions(folder)

    print(f"Registry: {registry_file}")
    print(f"Total submissions: {len(df)}")
    print("\nBatch-wise distribution:")
    for batch, size in df.groupby('Batch').size().items():
        print(f"   Batch {batch}: {size} submissions")
