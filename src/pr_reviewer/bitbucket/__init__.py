"""Bitbucket Server integration."""

from pr_reviewer.bitbucket.client import BitbucketClient, ChangedFile, ChangeType

__all__ = ["BitbucketClient", "ChangedFile", "ChangeType"]
