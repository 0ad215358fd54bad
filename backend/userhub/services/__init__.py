# Services package init
"""
Userhub Backend — Services Layer
==================================

Service Inventory:
    - BlobStore (abstract): put/get/exists/get_url/delete for named objects
    - LocalBlobStore / S3BlobStore: disk and bucket implementations
    - UploadService: upload policy (owner, type, size) and raw-bytes storage
    - ImageService: decode, resize into 800x800, re-encode, store under resized/
    - ProfileService: orchestrates the pipeline and partial profile updates
    - AccountService: registration and login

Services receive their collaborators through their constructors. The app
factory builds one set per application; nothing here is a module-level
singleton.
"""
