import unittest
import sys
import json
import shutil
import tempfile
from pathlib import Path
from unittest.mock import patch

# Add project root to sys.path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from leafdocs.core.content import ContentStore, slugify, MODE_DEVELOPMENT, MODE_PRODUCTION
from leafdocs.core.errors import (
    AlreadyExists, BadRequest, InternalError, InvalidPath, NotFound, ReadOnlyMode, ReservedName,
)


def snapshot(root: Path):
    return sorted(p.relative_to(root).as_posix() for p in root.rglob('*'))


class ContentTestCase(unittest.TestCase):
    def setUp(self):
        self.root = Path(tempfile.mkdtemp())
        self.store = ContentStore(self.root, mode=MODE_DEVELOPMENT)

    def tearDown(self):
        shutil.rmtree(self.root)


class TestSlugify(unittest.TestCase):
    def test_examples(self):
        self.assertEqual(slugify('Hello World!'), 'hello-world')
        self.assertEqual(slugify('Getting Started: Part 2'), 'getting-started-part-2')
        self.assertEqual(slugify('already-slugged'), 'already-slugged')
        self.assertEqual(slugify('../../etc'), 'etc')


class TestCreateDocument(ContentTestCase):
    def test_creates_layout(self):
        slug = self.store.create_document('Hello World!')
        self.assertEqual(slug, 'hello-world')

        post = self.root / 'hello-world'
        self.assertTrue((post / 'img').is_dir())
        self.assertEqual((post / 'index.md').read_text(encoding='utf-8'), '# Hello World!\n\nNew post.\n')
        meta = json.loads((post / '_meta.json').read_text(encoding='utf-8'))
        self.assertEqual(meta, {'index': 'Hello World!'})

    def test_created_document_is_readable(self):
        slug = self.store.create_document('Hello World!')
        data = self.store.read_document(slug)
        self.assertTrue(data['content'].startswith('# Hello World!'))
        self.assertEqual(data['images'], [])

    def test_reserved_names_leave_filesystem_unchanged(self):
        before = snapshot(self.root)
        for title in ('api', 'Home', 'ADMIN', 'img', 'posts'):
            with self.subTest(title=title):
                with self.assertRaises(ReservedName):
                    self.store.create_document(title)
        self.assertEqual(snapshot(self.root), before)

    def test_duplicate_slug(self):
        self.store.create_document('Hello World')
        with self.assertRaises(AlreadyExists):
            self.store.create_document('hello world')

    def test_missing_title(self):
        with self.assertRaises(BadRequest):
            self.store.create_document('')
        with self.assertRaises(BadRequest):
            self.store.create_document(None)
        with self.assertRaises(BadRequest):
            self.store.create_document('!!!')

    def test_partial_failure_is_not_rolled_back(self):
        with patch('pathlib.Path.write_text', side_effect=OSError('disk full')):
            with self.assertRaises(InternalError):
                self.store.create_document('Broken')
        self.assertTrue((self.root / 'broken' / 'img').is_dir())
        self.assertFalse((self.root / 'broken' / 'index.md').exists())


class TestReadWrite(ContentTestCase):
    def test_round_trip(self):
        slug = self.store.create_document('Round Trip')
        text = '# Changed\n\nwith unicode: éè and trailing spaces   \n'
        self.store.write_document(slug, text)
        self.assertEqual(self.store.read_document(slug)['content'], text)

    def test_home_maps_to_root_index(self):
        (self.root / 'index.mdx').write_text('# Root', encoding='utf-8')
        self.assertEqual(self.store.read_document('home')['content'], '# Root')

    def test_non_index_file_slug(self):
        (self.root / 'guide').mkdir()
        (self.root / 'guide' / 'setup.md').write_text('setup', encoding='utf-8')
        self.assertEqual(self.store.read_document('guide/setup')['content'], 'setup')

    def test_missing_document(self):
        with self.assertRaises(NotFound):
            self.store.read_document('nope')
        with self.assertRaises(NotFound):
            self.store.write_document('nope', 'text')

    def test_write_into_existing_directory_without_index(self):
        (self.root / 'bare').mkdir()
        self.store.write_document('bare', 'hello')
        self.assertEqual((self.root / 'bare' / 'index.md').read_text(encoding='utf-8'), 'hello')

    def test_write_requires_string(self):
        slug = self.store.create_document('Typed')
        with self.assertRaises(BadRequest):
            self.store.write_document(slug, None)

    def test_images_filtered_by_extension(self):
        slug = self.store.create_document('Pics')
        img = self.root / slug / 'img'
        for name in ('b.png', 'a.JPG', 'notes.txt', 'c.gif'):
            (img / name).write_bytes(b'x')
        self.assertEqual(self.store.read_document(slug)['images'], ['a.JPG', 'b.png', 'c.gif'])

    def test_image_path(self):
        slug = self.store.create_document('Pics')
        (self.root / slug / 'img' / 'a.png').write_bytes(b'x')
        self.assertEqual(self.store.image_path(slug, 'a.png'), self.root / slug / 'img' / 'a.png')
        with self.assertRaises(NotFound):
            self.store.image_path(slug, 'missing.png')
        with self.assertRaises(InvalidPath):
            self.store.image_path(slug, '../index.md')


class TestTraversal(ContentTestCase):
    def test_every_operation_rejects_traversal_before_touching_disk(self):
        operations = [
            lambda: self.store.read_document('../x'),
            lambda: self.store.write_document('../x', 'text'),
            lambda: self.store.delete_document('../x'),
            lambda: self.store.create_entry('../x', 'file'),
            lambda: self.store.rename('../x', 'y'),
            lambda: self.store.rename('y', '../x'),
            lambda: self.store.update_meta('../x.md', 'x', 'X'),
            lambda: self.store.delete('a/../../x'),
            lambda: self.store.image_path('../x', 'a.png'),
        ]
        with patch('pathlib.Path.exists') as exists, patch('pathlib.Path.is_file') as is_file:
            for op in operations:
                with self.assertRaises(InvalidPath):
                    op()
            exists.assert_not_called()
            is_file.assert_not_called()


class TestContentRootIsNotAddressable(ContentTestCase):
    def test_destructive_operations_refuse_the_root(self):
        slug = self.store.create_document('Keep Me')
        before = snapshot(self.root)
        operations = [
            lambda: self.store.delete('.'),
            lambda: self.store.delete('./'),
            lambda: self.store.delete_document('.'),
            lambda: self.store.rename('.', 'elsewhere'),
            lambda: self.store.rename(slug, '.'),
        ]
        for op in operations:
            with self.assertRaises(InvalidPath):
                op()
        self.assertTrue(self.root.is_dir())
        self.assertEqual(snapshot(self.root), before)


class TestReadOnlyMode(unittest.TestCase):
    def setUp(self):
        self.root = Path(tempfile.mkdtemp())
        (self.root / 'post').mkdir()
        (self.root / 'post' / 'index.md').write_text('text', encoding='utf-8')
        self.store = ContentStore(self.root, mode=MODE_PRODUCTION)

    def tearDown(self):
        shutil.rmtree(self.root)

    def test_all_operations_refused(self):
        operations = [
            self.store.list_tree,
            lambda: self.store.read_document('post'),
            lambda: self.store.write_document('post', 'x'),
            lambda: self.store.create_document('New'),
            lambda: self.store.delete_document('post'),
            lambda: self.store.create_entry('a.md', 'file'),
            lambda: self.store.rename('post', 'other'),
            lambda: self.store.update_meta('post/index.md', 'index', 'T'),
            lambda: self.store.delete('post'),
        ]
        for op in operations:
            with self.assertRaises(ReadOnlyMode):
                op()
        self.assertEqual((self.root / 'post' / 'index.md').read_text(encoding='utf-8'), 'text')
        self.assertFalse((self.root / 'new').exists())

    def test_find_document_still_works_for_rendering(self):
        self.assertEqual(self.store.find_document('post'), self.root / 'post' / 'index.md')


class TestEntries(ContentTestCase):
    def test_create_file_and_directory(self):
        self.store.create_entry('guide/setup.md', 'file')
        self.store.create_entry('drafts', 'directory')
        self.assertEqual((self.root / 'guide' / 'setup.md').read_text(encoding='utf-8'), '')
        self.assertTrue((self.root / 'drafts').is_dir())

    def test_create_existing_fails(self):
        self.store.create_entry('drafts', 'directory')
        with self.assertRaises(AlreadyExists):
            self.store.create_entry('drafts', 'directory')

    def test_invalid_kind(self):
        with self.assertRaises(BadRequest):
            self.store.create_entry('x', 'symlink')

    def test_rename(self):
        self.store.create_entry('a.md', 'file')
        self.store.rename('a.md', 'moved/b.md')
        self.assertFalse((self.root / 'a.md').exists())
        self.assertTrue((self.root / 'moved' / 'b.md').is_file())

    def test_rename_directory(self):
        slug = self.store.create_document('Old Name')
        self.store.rename(slug, 'new-name')
        self.assertEqual(self.store.read_document('new-name')['content'], '# Old Name\n\nNew post.\n')

    def test_rename_missing_source(self):
        with self.assertRaises(NotFound):
            self.store.rename('ghost.md', 'b.md')

    def test_rename_onto_existing(self):
        self.store.create_entry('a.md', 'file')
        self.store.create_entry('b.md', 'file')
        with self.assertRaises(AlreadyExists):
            self.store.rename('a.md', 'b.md')

    def test_delete_is_recursive_and_idempotent(self):
        slug = self.store.create_document('Gone')
        self.store.delete(slug)
        self.assertFalse((self.root / slug).exists())
        self.store.delete(slug)
        self.store.delete('never-existed/at-all.md')

    def test_delete_document_idempotent(self):
        slug = self.store.create_document('Gone Post')
        self.store.delete_document(slug)
        self.assertFalse((self.root / slug).exists())
        self.store.delete_document(slug)


class TestMeta(ContentTestCase):
    def test_creates_sidecar_in_parent_directory(self):
        self.store.create_entry('guide/setup.md', 'file')
        mapping = self.store.update_meta('guide/setup.md', 'setup', 'Setting Up')
        self.assertEqual(mapping, {'setup': 'Setting Up'})
        meta_file = self.root / 'guide' / '_meta.json'
        self.assertEqual(json.loads(meta_file.read_text(encoding='utf-8')), {'setup': 'Setting Up'})
        # Pretty printed
        self.assertIn('\n    "setup"', meta_file.read_text(encoding='utf-8'))

    def test_updates_existing_sidecar(self):
        slug = self.store.create_document('Guide')
        self.store.update_meta(f'{slug}/index.md', 'index', 'The Guide')
        self.store.update_meta(f'{slug}/extra.md', 'extra', 'Extra')
        meta = json.loads((self.root / slug / '_meta.json').read_text(encoding='utf-8'))
        self.assertEqual(meta, {'index': 'The Guide', 'extra': 'Extra'})

    def test_top_level_sidecar(self):
        self.store.update_meta('guide', 'guide', 'Guide')
        self.assertTrue((self.root / '_meta.json').is_file())

    def test_corrupt_sidecar_is_replaced(self):
        (self.root / '_meta.json').write_text('{not json', encoding='utf-8')
        self.assertEqual(self.store.update_meta('a.md', 'a', 'A'), {'a': 'A'})

    def test_requires_key(self):
        with self.assertRaises(BadRequest):
            self.store.update_meta('a.md', '', 'A')


if __name__ == '__main__':
    unittest.main()
