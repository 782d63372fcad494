"""
Storage backends: replicated documents, content-addressed blobs, identity
keystore and lock sentinel handling.
"""

from .blobs import BlobStore, MemoryBlobStore, FilesystemBlobStore, compute_cid, encode_object
from .documents import DocumentStoreEngine, DocumentCollection, Entry
from .keystore import Keystore
from .locks import clean_lock_files, LOCK_SENTINEL

__all__ = [
    'BlobStore', 'MemoryBlobStore', 'FilesystemBlobStore', 'compute_cid', 'encode_object',
    'DocumentStoreEngine', 'DocumentCollection', 'Entry', 'Keystore',
    'clean_lock_files', 'LOCK_SENTINEL',
]
