from pydantic import BaseModel
from typing import List


class PdfAnalytics(BaseModel):
    pageCount: int
    fileSize: str
    wordCount: int
    imageCount: int
    fontCount: int
    author: str
    title: str
    subject: str
    keywords: List[str]
    createdDate: str
    modifiedDate: str
    isEncrypted: bool
    hasSignature: bool
    isSearchable: bool
    hasBookmarks: bool
    processingTime: str
