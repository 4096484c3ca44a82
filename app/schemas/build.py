from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional


class FileItem(BaseModel):
    name: str
    content: str


class GenerateRequest(BaseModel):
    prompt: Optional[str] = None
    template: Optional[str] = None
    project_name: Optional[str] = Field(None, alias="projectName")
    description: Optional[str] = None
    color_scheme: Optional[str] = Field(None, alias="colorScheme")
    features: Optional[List[str]] = None
    model: Optional[str] = None

    class Config:
        populate_by_name = True


class CodeFixRequest(BaseModel):
    files: List[FileItem]
    description: Optional[str] = None
    model: Optional[str] = None


class AnalyzeRequest(BaseModel):
    files: List[FileItem]
    model: Optional[str] = None


class GitHubPushRequest(BaseModel):
    files: List[FileItem]
    repo_name: str = Field(..., alias="repoName")
    message: Optional[str] = None

    class Config:
        populate_by_name = True


class DeployRequest(BaseModel):
    subdomain: str
    files: List[FileItem]
    title: Optional[str] = None


class PwaRequest(BaseModel):
    subdomain: str
    app_name: Optional[str] = Field(None, alias="appName")
    theme_color: Optional[str] = Field(None, alias="themeColor")

    class Config:
        populate_by_name = True


class BadgeRemovalRequest(BaseModel):
    subdomain: str


class ScanRequest(BaseModel):
    url: str
    model: Optional[str] = Field(None, alias="engine")

    class Config:
        populate_by_name = True


class CloneAnalyzeRequest(BaseModel):
    url: Optional[str] = None
    code: Optional[str] = None


class CloneRebuildRequest(BaseModel):
    analysis: Dict[str, Any]
    modifications: Optional[str] = None
    model: Optional[str] = None
